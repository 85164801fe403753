"""
Agent outreach: collect real-estate agent contacts from several sources,
deduplicate them, and send one throttled outreach e-mail per agent.
"""

__version__ = "1.0.0"
