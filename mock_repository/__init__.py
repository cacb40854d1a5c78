"""Development repository server and the launcher that manages it."""
