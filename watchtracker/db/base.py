from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Note: models are imported in watchtracker.db.models to avoid circular imports
# All models must import Base from this module
