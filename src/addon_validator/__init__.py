"""
Celestia add-on submission validator and catalog uploader.

This package provides modular building blocks for:
- Reading a submission from a pending catalog record or a zip archive
- Validating it into a single create / update / remove operation
- Rendering the rich description HTML and a human readable summary
- Committing the operation to the CloudKit catalog (assets, thumbnail, records)

Public API:
- io.read_record, io.read_archive
- validate.validate, validate.validate_record, validate.validate_record_id, validate.validate_archive
- models.RichDescription.render, describe.summarize
- upload.Uploader, upload.CommitPlan
- cloudkit_client.CloudKitConfig, cloudkit_client.CloudKitDatabase
"""

from . import catalog, describe, errors, identifiers, images, io, models, upload, validate  # re-export modules

__all__ = [
    "catalog",
    "describe",
    "errors",
    "identifiers",
    "images",
    "io",
    "models",
    "upload",
    "validate",
]
