"""Remote system connectors: GitHub (tracker) and Notion (destination store)."""
