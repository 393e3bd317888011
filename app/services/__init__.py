# Services package.
#
# Each module exposes async functions that hold the business logic for one
# slice of the domain:
#
#   post_service      Post aggregate: create/list/get/update/delete, like
#                     toggle, hydration of identity references
#   comment_service   append-only comments on a Post
#   user_service      users and the batched profile lookup used for hydration
#
# All service functions take an AsyncSession first; the router layer owns the
# transaction through the ``get_db`` dependency.  Failures are raised as
# ``app.errors`` types and rendered by ``app.error_handlers``.
