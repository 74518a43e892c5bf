AUTHOR = "AUTHOR"
READER = "READER"

ROLES = (AUTHOR, READER)
