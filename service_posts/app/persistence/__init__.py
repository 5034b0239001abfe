"""
Post persistence package.

``PostgreSQLPostStore`` is the production backend. Anything exposing the same
coroutine methods (``create_post``, ``count_posts``, ``list_posts``,
``get_post``, ``search_posts``) can be injected into the service instead.
"""
