"""
Shared, cross-cutting code for the service.

`core/` holds the small building blocks every feature uses (settings, DB
pool wiring, the error taxonomy). Keep feature-specific SQL in the feature
package (e.g. `users/`).
"""
