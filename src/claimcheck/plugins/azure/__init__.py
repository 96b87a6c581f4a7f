"""Azure Storage transports for claimcheck.

Provides the Blob Storage payload store and the Queue Storage transport.
Supports multiple authentication methods:
- Connection string
- SAS token
- Managed Identity (for Azure-hosted workloads)
- Service Principal (for automated/CI scenarios)

The Azure SDK is imported lazily, so importing this package does not
require it:
    from claimcheck.plugins.azure.factory import build_client
    client = build_client(load_settings(Path("claimcheck.yaml")))
"""
