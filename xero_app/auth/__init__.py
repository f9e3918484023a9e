"""
Session and OAuth plumbing for the Xero console.

Design goals:
- Tokens stay server-side; the browser only holds a signed session id.
- Session state is either Disconnected or Connected, never half of each.
- The Xero client is injected per request so tests can swap it out.
"""
