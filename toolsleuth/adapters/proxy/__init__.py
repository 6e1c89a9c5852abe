"""Interception proxy: the mitmproxy addon and the mitmdump process."""
