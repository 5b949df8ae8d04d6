"""promptaudit: batch prompt-quality analysis against unreliable language model providers."""

import logging

# Library use stays silent unless the application configures logging.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
