"""
App Review Relay: forwards new App Store reviews to Slack.
"""

import logging

__version__ = "0.1.0"

# Silent unless the host application configures logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
