"""Images API: upload images, keep them on disk and list them newest first."""
