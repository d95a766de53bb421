"""Post office index synchronizer: reconciles ``post_info`` against the Ukrposhta workbook."""

__version__ = "0.1.0"
