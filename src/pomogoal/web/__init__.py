"""Reference goal/session store served over HTTP."""
