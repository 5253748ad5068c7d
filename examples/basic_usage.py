"""Basic single-file install example.

This example shows the simplest usage pattern: load settings, build a
pipeline, look up a catalog file and install it. The library resolves
dependencies, downloads from verified mirrors and deduplicates files in
the content store automatically.
"""

from pathlib import Path

from packstash import (
    CurseForgeClient,
    FileContentStore,
    InstallationPipeline,
    InstallCategory,
    InstallRequest,
    ThreadedTaskScheduler,
    create_router,
    load_settings,
)


# Option 1: Factory method (recommended for most cases)
# Auto-discovers the project root, reads .packstash/config.toml and the
# environment (CURSEFORGE_API_KEY), and wires up the default adapters
settings = load_settings()

with InstallationPipeline.from_settings(settings) as pipeline:
    # Just Enough Items, one of its Forge builds
    file = pipeline.fetch_project_file(238222, 4712866)
    result = pipeline.install_file(
        InstallRequest(
            file=file,
            category=InstallCategory.MOD,
            workspace_path=Path("./instance"),
        )
    )
    print(f"Stored at: {result.resource.path}")

    # A second install of the same file is served from the store
    pipeline.install_file(InstallRequest(file=file, category=InstallCategory.MOD))


# Option 2: Manual wiring (full control over adapters)
# Use this for custom mirrors, a different store location or sequential runs
router = create_router(timeout=settings.timeout)
with CurseForgeClient(api_key=settings.api_key) as client:
    pipeline = InstallationPipeline(
        catalog=client,
        store=FileContentStore(Path("./store")),
        scheduler=ThreadedTaskScheduler(router),
        temp_dir=Path("./downloads"),
    )
    modpack = pipeline.fetch_project_file(285109, 5398240)
    result = pipeline.install_file(
        InstallRequest(file=modpack, category=InstallCategory.BUNDLE)
    )
    for installed in result.walk():
        print(f"{installed.file.display_name} -> {installed.resource.path}")
router.close()
