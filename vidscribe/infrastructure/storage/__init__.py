"""
Local file storage: the downloaded-video cache and the retention janitor.
"""
