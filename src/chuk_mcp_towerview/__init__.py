"""
chuk-mcp-towerview: Tower Visibility (Viewshed) MCP Server

Fetches terrain elevation around a tower from OpenTopography, decides for
every cell whether it is visible from the tower top after Earth-curvature
correction, and returns a downsampled set of visible points for display.
Visibility rasters are stored in chuk-artifacts for downstream use.
"""
