# Shared low-level helpers
