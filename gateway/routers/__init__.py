"""HTTP routers exposing the gateway commands."""
