import logging
from logging.config import fileConfig
import os
from pathlib import Path

from flask import current_app
from alembic import context

config = context.config


def _init_logging():
    # alembic.ini is optional; fall back to plain console logging
    ini = config.config_file_name
    if ini and Path(ini).exists():
        fileConfig(ini)
        return
    logging.basicConfig(level=logging.INFO)


_init_logging()
logger = logging.getLogger("alembic.env")


def get_engine():
    return current_app.extensions["migrate"].db.engine


def get_engine_url():
    return get_engine().url.render_as_string(hide_password=False).replace("%", "%%")


# Alembic needs a URL in offline mode
config.set_main_option("sqlalchemy.url", get_engine_url())

target_db = current_app.extensions["migrate"].db


def get_metadata():
    # Importing the package registers every feedback-board table
    import app.models  # noqa: F401
    if hasattr(target_db, "metadatas"):
        return target_db.metadatas[None]
    return target_db.metadata


# Index names that autogenerate may drop (comma separated env var)
_DROP_INDEX_ALLOWLIST = {
    name.strip()
    for name in os.getenv("ALEMBIC_DROP_INDEX_ALLOWLIST", "").split(",")
    if name.strip()
}


def _include_object(object, name, type_, reflected, compare_to):
    """Never propose dropping an index that only exists in the database unless allowlisted."""
    if type_ == "index" and reflected and compare_to is None:
        return name in _DROP_INDEX_ALLOWLIST
    return True


def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=get_metadata(),
        literal_binds=True,
        compare_type=True,
        include_object=_include_object,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    def process_revision_directives(context_, revision, directives):
        if getattr(config.cmd_opts, "autogenerate", False):
            script = directives[0]
            if script.upgrade_ops.is_empty():
                directives[:] = []
                logger.info("No changes in schema detected.")

    conf_args = current_app.extensions["migrate"].configure_args
    conf_args = {
        **conf_args,
        "process_revision_directives": conf_args.get(
            "process_revision_directives", process_revision_directives
        ),
        "compare_type": True,
        "include_object": _include_object,
        # SQLite needs batch mode for ALTERs
        "render_as_batch": True,
        "target_metadata": get_metadata(),
    }

    with get_engine().connect() as connection:
        context.configure(connection=connection, **conf_args)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
