"""Operator commands, run as ``python -m tandem.maintenance.<name>``.

Exit codes: 0 success, 1 precondition failure (missing configuration or
data), 2 partial success with non-fatal errors listed in the JSON result.
"""

EXIT_OK = 0
EXIT_PRECONDITION = 1
EXIT_PARTIAL = 2
