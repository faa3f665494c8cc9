# homenet/consultations/catalogue.py
"""Fixed package and service offerings shown on the get-started page."""

PACKAGES = [
    {
        'id': 'foundation',
        'name': 'Foundation Network',
        'priceRange': '$799-$1,499',
        'idealFor': 'Builder-grade homes using ISP router only.',
        'includes': [
            'Network assessment',
            'Mesh router setup with optional wired backhaul',
            'Latency optimization (gaming + remote work)',
            'Cable management and clean mounting',
        ],
    },
    {
        'id': 'backbone',
        'name': 'Smart Home Backbone',
        'priceRange': '$1,500-$3,500',
        'idealFor': 'Homes adding automation and security devices.',
        'includes': [
            'Full network redesign',
            'Managed PoE switch',
            '2-4 PoE access point installs',
            'VLAN segmentation (Main / Guest / IoT / Cameras)',
            'Structured panel or rack cleanup',
            'Smart home hub setup (Home Assistant optional)',
            'Optional remote management configuration',
        ],
    },
    {
        'id': 'security',
        'name': 'Security',
        'priceRange': '$999-$1,999',
        'idealFor': 'Homes adding PoE cameras with local recording.',
        'includes': [
            '2-4 PoE camera installs',
            'Local NVR setup (no subscriptions)',
            'Detection zone configuration',
            'Night vision optimization',
            'Secure remote access',
            'Camera VLAN isolation',
        ],
    },
    {
        'id': 'performance',
        'name': 'Performance + Protection',
        'priceRange': '$2,500-$6,000',
        'idealFor': 'Full coverage: network, cameras, and smart home.',
        'includes': [
            'Everything in Smart Home Backbone',
            'Everything in Security package',
            'UPS battery protection',
            'Full labeling and documentation',
            'Network diagram provided',
        ],
    },
]

STANDALONE_SERVICES = [
    {'id': 'ethernet-drops', 'name': 'Ethernet Drops', 'price': '$150-$300 per drop',
     'description': '$150-$200 (attic access), $200-$300 (difficult walls). Discount for 4+ drops.'},
    {'id': 'camera-install', 'name': 'PoE Camera Install', 'price': '$125-$175 per camera',
     'description': 'Mount + configure. Wiring additional if needed.'},
    {'id': 'ap-install', 'name': 'Access Point Install', 'price': '$125-$200 per AP',
     'description': 'Includes mounting + configuration.'},
    {'id': 'network-cleanup', 'name': 'Network Cleanup / Rebuild', 'price': '$250-$500',
     'description': 'Flat diagnostic + cleanup.'},
]

SQUARE_FOOTAGE = ('Under 1,500', '1,500-2,500', '2,500-3,500', '3,500-5,000', 'Over 5,000')

CURRENT_ISSUES = (
    'Weak WiFi', 'Dead zones', 'Slow speeds', 'Too many devices',
    'No wired connections', 'Subscription cameras', 'ISP router only', 'Smart home issues',
)

SERVICE_LABELS = {
    'networking': 'Networking',
    'smart-home': 'Smart Home',
    'cameras': 'Cameras',
    'structured-wiring': 'Structured Wiring',
}
INTERESTED_SERVICES = tuple(SERVICE_LABELS)

PACKAGE_LABELS = {p['id']: f"{p['name']} ({p['priceRange']})" for p in PACKAGES}
PACKAGE_LABELS.update({'standalone': 'Standalone Services', 'unsure': 'Not Sure'})
PACKAGE_CHOICES = tuple(PACKAGE_LABELS)
