"""A personal recipe box. Centres around the `RecipeStore`.

- Recipes own their ingredients. Deleting a recipe deletes them too.
- Lists and search only need titles, details are loaded on selection.
- Every storage call runs in a worker so pages never wait on a stuck query
  longer than configured.
- Storage failures become notices for the user, never tracebacks.
"""
