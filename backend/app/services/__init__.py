# Services package init
"""
LocalSpots Backend - Services Layer
=====================================

Service Inventory:
    - ProximitySearch (proximity_service): radius search, nearest first
    - ProximityBackend (proximity_base): distance strategy interface
        - GeodesicBackend: haversine, PostGIS ST_DWithin prefilter
        - PlanarBackend: equirectangular approximation
    - SpatialCapabilityDetector: PostGIS check run once at startup
    - SpotService: spot CRUD, listing and nearby response shaping
    - CategoryService: category CRUD and spot counts
"""
