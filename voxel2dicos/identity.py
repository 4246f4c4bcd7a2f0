"""
identity.py - Unique identifier allocation.

The CT image and the TDR produced in one run are linked only through the
image's SOP Instance UID, so every UID must be unique across runs without a
central registry.  pydicom's generate_uid() appends a value derived from a
random UUID4 to the organisational prefix, which makes collisions
negligible.
"""

import logging
from dataclasses import dataclass

from pydicom.uid import PYDICOM_ROOT_UID, generate_uid

logger = logging.getLogger(__name__)


def generate_identifier(prefix: str = PYDICOM_ROOT_UID) -> str:
    """
    Return one new UID under *prefix*.

    Raises
    ------
    ValueError
        If *prefix* is not a valid UID prefix (must end with '.').
    """
    return str(generate_uid(prefix=prefix))


@dataclass(frozen=True)
class SeriesIdentity:
    """UIDs stamped on one generated object."""
    study_instance_uid: str
    series_instance_uid: str
    frame_of_reference_uid: str
    sop_instance_uid: str

    @classmethod
    def allocate(cls, prefix: str = PYDICOM_ROOT_UID) -> "SeriesIdentity":
        identity = cls(
            study_instance_uid=generate_identifier(prefix),
            series_instance_uid=generate_identifier(prefix),
            frame_of_reference_uid=generate_identifier(prefix),
            sop_instance_uid=generate_identifier(prefix),
        )
        logger.debug("Allocated SOP Instance UID %s", identity.sop_instance_uid)
        return identity
