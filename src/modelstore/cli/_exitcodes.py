"""Process exit codes of the modelstore CLI."""

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
NOT_FOUND = 3
DATABASE_ERROR = 4
EXECUTION_FAILURE = 5
