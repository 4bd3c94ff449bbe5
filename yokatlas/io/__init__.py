"""Serialization of collected records and run reports."""

from yokatlas.io.export import records_to_frame, to_csv_text, to_json_text, write_json_atomic, write_outputs

__all__ = ["records_to_frame", "to_csv_text", "to_json_text", "write_json_atomic", "write_outputs"]
