"""Settings for the files app."""

from server.settings.components import config

# Remove the freshly written blob when the metadata insert of an upload
# fails. Disabling leaves the orphan for `reconcile_files` to collect.
FILES_COMPENSATE_UPLOADS = config(
    'FILES_COMPENSATE_UPLOADS',
    cast=bool,
    default=True,
)
