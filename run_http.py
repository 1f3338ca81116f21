"""HTTP runner for MCP server (remote deployment)."""
import sys, os
os.environ.setdefault("VKW_MCP_MODE", "gemini")

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.server import TransportSecuritySettings
from voice_keyword_mcp.server import (
    app_lifespan,
    load_audio,
    submit_transcript,
    get_transcript,
    list_keywords,
    add_keyword,
    edit_keyword,
    remove_keyword,
    analyze_keywords,
    get_stats,
    reset_results,
    set_language,
    clear_audio,
    spot_keywords,
    help_resource,
    READ_ONLY_ANNOTATIONS,
    LOCAL_ANNOTATIONS,
    REMOTE_ANNOTATIONS,
)

server = FastMCP(
    "Voice Keyword Spotter",
    instructions="Transcribe audio and check the transcript against a keyword list",
    lifespan=app_lifespan,
    host="0.0.0.0",
    port=8402,
    transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
)

# Register tools with annotations
server.tool(annotations=REMOTE_ANNOTATIONS)(load_audio)
server.tool(annotations=REMOTE_ANNOTATIONS)(analyze_keywords)
server.tool(annotations=LOCAL_ANNOTATIONS)(submit_transcript)
server.tool(annotations=LOCAL_ANNOTATIONS)(add_keyword)
server.tool(annotations=LOCAL_ANNOTATIONS)(edit_keyword)
server.tool(annotations={**LOCAL_ANNOTATIONS, "destructiveHint": True})(remove_keyword)
server.tool(annotations=LOCAL_ANNOTATIONS)(reset_results)
server.tool(annotations=LOCAL_ANNOTATIONS)(set_language)
server.tool(annotations={**LOCAL_ANNOTATIONS, "destructiveHint": True})(clear_audio)
server.tool(annotations=READ_ONLY_ANNOTATIONS)(get_transcript)
server.tool(annotations=READ_ONLY_ANNOTATIONS)(list_keywords)
server.tool(annotations=READ_ONLY_ANNOTATIONS)(get_stats)

# Register prompts
server.prompt()(spot_keywords)

# Register resources
server.resource("keywords://help")(help_resource)

server.run(transport="streamable-http")
