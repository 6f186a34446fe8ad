"""
Error Message Utilities

Turns the most common PostgreSQL / asyncpg failures seen while running
configured searches into messages that point at the resources file.
"""

import re

# Shown for statement timeouts, server or client side
TIMEOUT_MESSAGE = "The query took too long and was cancelled (see DBDRILL_COMMAND_TIMEOUT)."


def enhance_error_message(error: Exception) -> str:
    """
    Enhance database error messages with human-readable explanations.

    Handles:
    - Placeholder count mismatches between the query and its params
    - SQL syntax errors
    - Unknown relations and columns
    - Invalid input for a typed parameter
    - Operator/type mismatches
    - Statement timeouts

    Returns the enhanced error message string.
    """
    error_str = str(error).strip()

    args_match = re.search(r"the server expects (\d+) arguments? for this query, (\d+) (?:was|were) passed", error_str)
    if args_match:
        expected, passed = args_match.groups()
        return (
            f"Parameter count mismatch: the query uses {expected} placeholder(s) "
            f"but the search declares {passed} param(s)."
        )

    syntax_match = re.search(r'syntax error at or near "([^"]*)"', error_str)
    if syntax_match:
        return f"SQL syntax error near '{syntax_match.group(1)}'. Check the search query in the resources file."

    if re.search(r"syntax error at end of input", error_str):
        return "SQL syntax error: the query ends unexpectedly. Check the search query in the resources file."

    relation_match = re.search(r'relation "([^"]+)" does not exist', error_str)
    if relation_match:
        return f"Unknown table or view '{relation_match.group(1)}'."

    column_match = re.search(r'column "([^"]+)" does not exist', error_str)
    if column_match:
        return f"Unknown column '{column_match.group(1)}'."

    input_match = re.search(r'invalid input syntax for(?: type)? ([\w ]+?): "([^"]*)"', error_str)
    if input_match:
        type_name, value = input_match.groups()
        return f"Invalid value '{value}' for a {type_name} parameter."

    operator_match = re.search(r"operator does not exist: (.+?)(?:\n|$)", error_str)
    if operator_match:
        return (
            f"Type mismatch in query ({operator_match.group(1)}). "
            f"Declare a matching param type or add an explicit cast."
        )

    if re.search(r"canceling statement due to statement timeout", error_str):
        return TIMEOUT_MESSAGE

    return error_str
