from motor.motor_asyncio import AsyncIOMotorDatabase

REPOSITORIES_COLLECTION = "repositories"
MANIFESTS_COLLECTION = "manifests"
URL_DEPENDENCIES_COLLECTION = "url_dependencies"
DEPENDENCIES_COLLECTION = "dependencies"


async def ensure_store_indexes(db: AsyncIOMotorDatabase):
    """repositories / manifests / dependencies collection indexes"""
    repos = db[REPOSITORIES_COLLECTION]
    manifests = db[MANIFESTS_COLLECTION]
    deps = db[DEPENDENCIES_COLLECTION]

    # one row per (platform, full_name)
    await repos.create_index(
        [("platform", 1), ("full_name", 1)],
        unique=True,
        name="platform_full_name_unique",
    )

    # manifest refresh: most-starred stale repos first
    await repos.create_index(
        [("manifest_fetched_at", 1), ("stars", -1)],
        name="manifest_fetched_stars",
    )

    await manifests.create_index(
        [("platform", 1), ("full_name", 1)],
        unique=True,
        name="platform_full_name_unique",
    )

    # url_dependencies are keyed by content hash (_id), no extra index needed

    await deps.create_index(
        [("platform", 1), ("full_name", 1), ("name", 1), ("dependency_type", 1), ("path", 1)],
        unique=True,
        partialFilterExpression={"dependency_type": "path"},
        name="path_dependency_unique",
    )
    await deps.create_index(
        [("platform", 1), ("full_name", 1), ("name", 1), ("dependency_type", 1), ("url_dependency_hash", 1)],
        unique=True,
        partialFilterExpression={"dependency_type": "url"},
        name="url_dependency_unique",
    )

    # reverse lookup: who depends on this hash
    await deps.create_index(
        [("url_dependency_hash", 1)],
        name="url_dependency_hash",
    )
