"""Pipeline stages behind the ``find_unresolved_comments`` tool."""
