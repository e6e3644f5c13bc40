"""
Project configuration and versioning for the Doctrine Index.
"""

APP_NAME = "Doctrine Index"
__version__ = "0.4.0"

# Environment variable that overrides the default database location.
DB_ENV_VAR = "DOCTRINE_DB"

# How many parsed citations per chapter are flagged as primary at import.
PRIMARY_REFS_PER_CHAPTER = 5
PRIMARY_REFS_MIN = 3
PRIMARY_REFS_MAX = 5

# Outline: cap on the number of key scriptures listed for a chapter.
OUTLINE_KEY_SCRIPTURES = 10
