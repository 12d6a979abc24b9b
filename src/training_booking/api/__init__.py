"""HTTP surface: maps requests to booking engine calls."""
