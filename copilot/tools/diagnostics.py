"""
Simulated Windows and PowerShell diagnostic tools for the terminal copilot.

None of these touch the local machine: each one returns scripted output in
the shape the real command would print.
"""

import logging

from ..display import Choice, InteractiveContinuation, StreamedOutput
from ..models import FunctionCall, ParameterSchema, ParametersSchema, ToolDeclaration, ToolResult
from ..registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_PORT = 80
SUCCESSFUL_PORTS = (80, 443)

DIAGNOSTIC_TOOLS = []


def _tool(declaration):
    def decorator(executor):
        DIAGNOSTIC_TOOLS.append((declaration, executor))
        return executor
    return decorator


@_tool(ToolDeclaration(
    name="scan_virus",
    description="Triggers a system virus scan using the default antivirus software (Windows Defender).",
))
async def scan_virus(args, ctx):
    lines = [
        'Starting Windows Defender scan...',
        'Scan engine version: 1.1.24040.1',
        'Scanning C:\\Windows\\System32...',
        '[||||......] 25% complete. Files scanned: 15,342',
        'Scanning C:\\Users\\ITPro\\Documents...',
        '[||||||||||] 50% complete. Files scanned: 32,110',
        'No threats found in C:\\Users\\ITPro\\Documents.',
        'Scanning Program Files...',
        '[||||||||||||||] 75% complete. Files scanned: 89,567',
        'Scanning registry...',
        '[||||||||||||||||||||] 100% complete. Files scanned: 124,890',
        'Scan finished. No threats detected.',
        'Total scan time: 00:02:45',
    ]
    return ToolResult(
        display=StreamedOutput(lines, interval=0.3),
        raw_data='Windows Defender scan completed successfully. No threats were detected.',
    )


NETWORK_CONFIG = """
Windows IP Configuration

   Host Name . . . . . . . . . . . . : DESKTOP-ITPRO
   Primary Dns Suffix  . . . . . . . :
   Node Type . . . . . . . . . . . . : Hybrid
   IP Routing Enabled. . . . . . . . : No
   WINS Proxy Enabled. . . . . . . . : No

Ethernet adapter Ethernet0:

   Connection-specific DNS Suffix  . : hsd1.ca.comcast.net.
   Description . . . . . . . . . . . : Intel(R) 82574L Gigabit Network Connection
   Physical Address. . . . . . . . . : 00-0C-29-1C-7F-1E
   DHCP Enabled. . . . . . . . . . . : Yes
   Autoconfiguration Enabled . . . . : Yes
   IPv4 Address. . . . . . . . . . . : 192.168.1.102(Preferred)
   Subnet Mask . . . . . . . . . . . : 255.255.255.0
   Lease Obtained. . . . . . . . . . : Sunday, July 21, 2024 8:00:00 AM
   Lease Expires . . . . . . . . . . : Monday, July 22, 2024 8:00:00 AM
   Default Gateway . . . . . . . . . : 192.168.1.1
   DHCP Server . . . . . . . . . . . : 192.168.1.1
   DNS Servers . . . . . . . . . . . : 8.8.8.8
                                       8.8.4.4
   NetBIOS over Tcpip. . . . . . . . : Enabled
"""


@_tool(ToolDeclaration(
    name="get_network_config",
    description="Retrieves and displays detailed IP configuration for all network adapters, similar to ipconfig /all.",
))
async def get_network_config(args, ctx):
    return ToolResult(display=NETWORK_CONFIG, raw_data=NETWORK_CONFIG)


SYSTEM_INFO = """
Host Name:                 DESKTOP-ITPRO
OS Name:                   Microsoft Windows 11 Pro
OS Version:                10.0.22631 N/A Build 22631
System Manufacturer:       VMware, Inc.
System Model:              VMware Virtual Platform
System Type:               x64-based PC
Processor(s):              1 Processor(s) Installed.
                           [01]: Intel64 Family 6 Model 158 Stepping 10 GenuineIntel ~2494 Mhz
BIOS Version:              VMware, Inc. VMW71.00V.19652011.B64.2204130541, 4/13/2022
Total Physical Memory:     16,384 MB
Available Physical Memory: 9,871 MB
Virtual Memory: Max Size:  20,480 MB
Virtual Memory: Available: 12,123 MB
Virtual Memory: In Use:    8,357 MB
Domain:                    WORKGROUP
"""


@_tool(ToolDeclaration(
    name="get_system_info",
    description="Displays detailed hardware and software information about the computer, similar to systeminfo.",
))
async def get_system_info(args, ctx):
    return ToolResult(display=SYSTEM_INFO, raw_data=SYSTEM_INFO)


@_tool(ToolDeclaration(
    name="check_disk_health",
    description="Checks the C: drive for errors and displays a status report, similar to chkdsk.",
))
async def check_disk_health(args, ctx):
    lines = [
        'Checking C: drive for errors...',
        'The type of the file system is NTFS.',
        'CHKDSK is verifying files (stage 1 of 3)...',
        '  135168 file records processed.',
        'File verification completed.',
        'CHKDSK is verifying indexes (stage 2 of 3)...',
        '  164234 index entries processed.',
        'Index verification completed.',
        'CHKDSK is verifying security descriptors (stage 3 of 3)...',
        '  135168 security descriptors processed.',
        'Security descriptor verification completed.',
        'Windows has scanned the file system and found no problems.',
        'No further action is required.',
        '',
        '  488281249 KB total disk space.',
        '  123456789 KB in use.',
        '  364824460 KB available.',
    ]
    return ToolResult(
        display=StreamedOutput(lines, interval=0.25),
        raw_data='CHKDSK completed. Windows has scanned the file system and found no problems.',
    )


RUNNING_PROCESSES = """
Handles  NPM(K)    PM(K)      WS(K)     CPU(s)     Id  SI ProcessName
-------  ------    -----      -----     ------     --  -- -----------
    880      34    45820      51236       2.41   4028   1 ApplicationFrameHost
    450      21    23876      29840       0.78   8192   1 CcmExec
   1230      45   102345      98765      12.34   1234   1 chrome
    670      29    34567      41234       1.98   5678   1 explorer
   2345     110   256789     310987      45.67   9101   1 Code
    150      10     8765      12345       0.23   1121   0 csrss
"""


@_tool(ToolDeclaration(
    name="get_running_processes",
    description="Lists all currently running processes on the local machine, similar to the PowerShell cmdlet Get-Process.",
))
async def get_running_processes(args, ctx):
    return ToolResult(display=RUNNING_PROCESSES.strip(), raw_data=RUNNING_PROCESSES)


@_tool(ToolDeclaration(
    name="test_network_connection",
    description="Performs a network connection test to a specified host and port, similar to Test-NetConnection.",
    parameters=ParametersSchema(
        properties={
            "computerName": ParameterSchema(
                type="STRING",
                description='The hostname or IP address to test the connection to. (e.g., "google.com", "8.8.8.8")',
            ),
            "port": ParameterSchema(
                type="INTEGER",
                description="The TCP port to test the connection on. Defaults to 80 if not specified.",
            ),
        },
        required=["computerName"],
    ),
))
async def check_network_connection(args, ctx):
    computer_name = args["computerName"]
    port = args.get("port")
    if port is None:
        port = DEFAULT_PORT
    tcp_success = port in SUCCESSFUL_PORTS

    lines = [
        f'Testing connection to {computer_name} on port {port}...',
        f'ComputerName           : {computer_name}',
        'RemoteAddress          : 172.217.1.174',
        'InterfaceAlias         : Ethernet0',
        'SourceAddress          : 192.168.1.102',
        'PingSucceeded          : True',
        'PingReplyDetails (RTT) : 12 ms',
        f'TcpTestSucceeded       : {tcp_success}',
        '',
        'Connection test complete.',
    ]
    return ToolResult(
        display=StreamedOutput(lines, interval=0.2),
        raw_data=(
            f'Connection test to {computer_name} on port {port} completed. '
            f'Ping succeeded. TCP test succeeded: {tcp_success}.'
        ),
    )


SYSTEM_SERVICES = """
Status   Name               DisplayName
------   ----               -----------
Running  AppIDSvc           Application Identity
Stopped  Appinfo            Application Information
Running  AppXSvc            AppX Deployment Service (AppXSVC)
Stopped  AudioEndpointBu... Windows Audio Endpoint Builder
Running  Audiosrv           Windows Audio
Running  BITS               Background Intelligent Transfer Ser...
Stopped  Browser            Computer Browser
Running  CoreMessaging...   CoreMessaging
"""


@_tool(ToolDeclaration(
    name="get_system_services",
    description="Lists all system services and their current status (Running, Stopped), similar to Get-Service.",
))
async def get_system_services(args, ctx):
    return ToolResult(display=SYSTEM_SERVICES.strip(), raw_data=SYSTEM_SERVICES)


@_tool(ToolDeclaration(
    name="install_ps_module",
    description="Finds and installs a PowerShell module from the PowerShell Gallery.",
    parameters=ParametersSchema(
        properties={
            "moduleName": ParameterSchema(
                type="STRING",
                description='The name of the PowerShell module to install (e.g., "Posh-Git", "dbatools").',
            ),
        },
        required=["moduleName"],
    ),
))
async def install_ps_module(args, ctx):
    """
    Two-phase install. Without ``confirmNuget`` the user is asked to accept
    the NuGet provider; the "Yes" choice resubmits this tool with the flag set.
    """
    module_name = args["moduleName"]

    if not args.get("confirmNuget"):
        logger.info(f"Asking for NuGet provider confirmation before installing {module_name}")
        prompt = InteractiveContinuation(
            message="PowerShellGet requires the NuGet provider to continue. Do you want to install it?",
            choices=[
                Choice(
                    label="Yes",
                    action=FunctionCall(
                        name="install_ps_module",
                        args={"moduleName": module_name, "confirmNuget": True},
                    ),
                ),
                Choice(label="No", action="Cancelled by user."),
            ],
            on_choice=ctx.resubmit,
        )
        return ToolResult(display=prompt, raw_data="User was prompted to install the NuGet provider.")

    lines = [
        f"NuGet provider accepted. Installing module '{module_name}' from PSGallery...",
        f"Fetching module metadata for '{module_name}'...",
        f"Downloading {module_name}.1.2.3.nupkg...",
        '[...                ] 10%',
        '[.........          ] 45%',
        '[...............    ] 78%',
        '[...................] 100%',
        f"Installing module '{module_name}' to C:\\Program Files\\PowerShell\\Modules",
        'Installation complete.',
    ]
    return ToolResult(
        display=StreamedOutput(lines, interval=0.25),
        raw_data=f"Module '{module_name}' was successfully installed after user confirmed NuGet provider installation.",
    )


def build_diagnostic_registry() -> ToolRegistry:
    """Build the registry of simulated diagnostic tools."""
    registry = ToolRegistry()
    for declaration, executor in DIAGNOSTIC_TOOLS:
        registry.register(declaration.name, executor, declaration)
    return registry
