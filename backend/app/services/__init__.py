# Services package init
"""
ClubShelf Voting Backend — Services Layer
===========================================

What:  Business rules between the routes (HTTP) and the database.
How:   Stateless service singletons. Each write runs as one unit of work
       through `run_in_transaction`, which commits and retries conflicts.

Service Inventory:
    - club_access:        club loading with row locks, member/admin checks
    - SuggestionService:  ballot creation and listing
    - VoteService:        vote cast and retraction
    - VotingService:      cycle open/close, tally, expiry sweep, status
    - WinnerService:      winner selection and current-book completion
    - tally:              pure vote tally (no I/O)

Why services are separate from routes:
    The expiry sweep job calls the same close procedure as the HTTP route,
    and the service tests run without any HTTP layer.
"""
