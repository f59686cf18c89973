"""
Ingestion: OAuth tokens and one client per upstream data provider.

Clients:
  blizzard_client.py      Blizzard Profile API (profile, gear, encounters)
  raiderio_client.py      Raider.IO (M+ score and runs, raid summary)
  warcraftlogs_client.py  Warcraft Logs v2 GraphQL (rankings, weekly kills)

Credentials (environment / .env):
  BLIZZARD_CLIENT_ID, BLIZZARD_CLIENT_SECRET
  WCL_CLIENT_ID, WCL_CLIENT_SECRET

Raider.IO needs no credentials.
"""
