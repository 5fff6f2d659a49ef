# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single aggregate:
#
#   user_service    : accounts, login, token issuing
#   post_service    : posts + the published-post COUNT feed
#   book_service    : books
#   comment_service : comments on posts
#   review_service  : ratings/reviews of books
#   file_service    : uploaded blobs and their metadata records
#   search_service  : title/body search across posts and books
#
# All service functions accept an AsyncSession as their first argument.
# Reads return plain dicts (or ``Page`` objects of dicts).  Writes follow one
# template: check ownership, write, commit, then publish a ChangeEvent on the
# ChangeNotifier passed in by the caller.  Committing before publishing keeps
# subscribers from ever seeing a write that was rolled back.
