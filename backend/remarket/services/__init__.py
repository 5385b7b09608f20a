# Services package init
"""
Remarket Backend - Services Layer
===================================

What:  Business logic between the routes (HTTP) and the persistence gateway.
How:   Each service is a stateless class with a module-level singleton; every
       method receives the request's AsyncSession, so a route's work commits
       or rolls back as one unit.

Service Inventory:
    - UserService: accounts, tokens, profile, favorites, admin user management
    - ListingService: listing lifecycle, moderation, de-duplicated view counting
    - ListingQueryEngine: filtered, sorted, paginated listing search
    - CategoryService: category tree maintenance and slugs
    - ReviewService: reviews on listings
    - ConversationService: order-independent find-or-create of conversations
    - MessageService: message store and the send workflow
    - DashboardService: admin statistics
"""
