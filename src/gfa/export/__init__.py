from .service import ReportExportService

__all__ = ["ReportExportService"]
