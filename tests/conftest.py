from app.utils.logging_utils import configure_logging

# Bind the JSON handler once, before any test swaps sys.stderr.
configure_logging()
