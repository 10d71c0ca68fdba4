from typing import Iterable, List, Optional

from matanest.media_service.models import MediaItem, MediaStatus
from matanest.exceptions import NothingToExportException

EXPORT_FILENAME = "matanest_export.csv"
CSV_HEADERS = ["Filename", "Title", "Keywords", "Category", "Releases"]


def escape_csv_field(field: Optional[str]) -> str:
    if field is None:
        return '""'
    return '"' + str(field).replace('"', '""') + '"'


def exportable_items(items: Iterable[MediaItem]) -> List[MediaItem]:
    return [it for it in items if it.status == MediaStatus.COMPLETED and it.metadata is not None]


def build_csv(items: Iterable[MediaItem]) -> str:
    """Serializes completed items to the stock-upload CSV layout.

    Category and Releases are always left empty.
    """
    to_export = exportable_items(items)
    if not to_export:
        raise NothingToExportException()

    rows = [",".join(CSV_HEADERS)]
    for item in to_export:
        rows.append(",".join([
            escape_csv_field(item.filename),
            escape_csv_field(item.metadata.title),
            escape_csv_field(", ".join(item.metadata.keywords)),
            "",
            "",
        ]))
    return "\n".join(rows)
