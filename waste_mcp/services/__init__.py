"""Tool services for the Waste Management MCP Server.

Modules
-------
base
    ServiceMetrics and the ToolService base class
sampling_tools
    SamplingToolService: facility report, shipment risk and inspection
    checklist tools
"""
