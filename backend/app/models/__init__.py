from app.models.user import User
from app.models.csv_file import BatchType, CellValue, CsvFile, CsvRow

__all__ = [
    "User",
    "BatchType", "CellValue", "CsvFile", "CsvRow",
]
