"""
Resources document schema
Using Pydantic for structural validation of the decoded resources file

The file maps entity identifiers to entities:

    [user]
    name = "User"

    [user.search.id]
    query = "SELECT * FROM users WHERE id = $1"
    params = [{ name = "id", type = "integer" }]

    [user.links.Blogs]
    kind = "blog"
    search = "by_editor"
    search_params = ["id"]

These models only check shapes. Cross references (link targets, binding
counts, parameter types, JSONPath syntax) are validated by registry.load().
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel


class DocumentModel(BaseModel):
    """Base for document sections: immutable, unknown keys rejected"""
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class SearchParamDoc(DocumentModel):
    """One positional parameter of a search ($1, $2, ...)"""
    name: str
    type: Optional[str] = None  # defaults to text


class SearchDoc(DocumentModel):
    query: str
    params: list[SearchParamDoc] = Field(default_factory=list)


class JsonPathBindingDoc(DocumentModel):
    """Bind a parameter from a JSON column: json_path = [column, path]"""
    json_path: tuple[str, Union[str, list[str]]]


# A plain string binds the column with that name
BindingDoc = Union[str, JsonPathBindingDoc]


class ConditionDoc(DocumentModel):
    """Only offer a link when the bound value equals the given one"""
    eq: tuple[BindingDoc, Union[str, bool, int, float]]


class LinkDoc(DocumentModel):
    kind: str  # target entity identifier
    search: str  # search name on the target entity
    search_params: list[BindingDoc] = Field(default_factory=list)
    condition: Optional[ConditionDoc] = Field(default=None, alias="if")


class ResourceDoc(DocumentModel):
    name: str
    search: dict[str, SearchDoc] = Field(default_factory=dict)
    links: dict[str, LinkDoc] = Field(default_factory=dict)


class ResourcesDocument(RootModel[dict[str, ResourceDoc]]):
    """The whole decoded resources file"""
