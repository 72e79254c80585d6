"""Infrastructure Layer.

Adapters implementing the domain ports. Imported as `infrastructure.*` with
`src/` on the path.
"""
