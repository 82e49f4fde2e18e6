from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# Embedded documents: JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONDocument = JSON().with_variant(JSONB(), "postgresql")
