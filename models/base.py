from sqlalchemy.orm import declarative_base
from sqlalchemy import event
from core.id_generator import TYPE_POSTFIX, generate_random_id

# Shared Base for every model
Base = declarative_base()


@event.listens_for(Base, "before_insert", propagate=True)
def assign_random_id(mapper, connection, target):
    if getattr(target, "id", None) is None and target.__tablename__ in TYPE_POSTFIX:
        target.id = generate_random_id(target.__tablename__)
