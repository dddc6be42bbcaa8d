# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   post_service     - posts, movie posts, feed pagination, views, likes
#   comment_service  - comments, soft delete, like toggle
#   user_service     - registration, login, profile lookup
#   likes            - set operations shared by post and comment likes
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
