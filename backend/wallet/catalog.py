"""Default partner reward catalog, loaded by ``manage.py seed_rewards``."""

DEFAULT_REWARDS = [
    {
        'id': 'starbucks-coffee',
        'title': 'Starbucks Coffee',
        'description': 'Grande size any drink',
        'category': 'food',
        'cost': 50,
        'original_price': '₹395',
        'brand': 'Starbucks',
        'image': 'https://images.pexels.com/photos/312418/pexels-photo-312418.jpeg?auto=compress&cs=tinysrgb&w=400',
        'featured': True,
        'terms': [
            'Valid at all Starbucks outlets in India',
            'Cannot be combined with other offers',
            'Valid for 30 days from redemption',
        ],
    },
    {
        'id': 'nike-discount',
        'title': 'Nike Sneakers',
        'description': '25% off any sneaker',
        'category': 'clothing',
        'cost': 150,
        'discount': '25% OFF',
        'brand': 'Nike',
        'image': 'https://images.pexels.com/photos/2529148/pexels-photo-2529148.jpeg?auto=compress&cs=tinysrgb&w=400',
        'featured': True,
        'terms': [
            'Valid at Nike stores and online',
            'Minimum purchase of ₹2000',
            'Valid for 60 days from redemption',
        ],
    },
    {
        'id': 'airbnb-credit',
        'title': 'Airbnb Credit',
        'description': '₹2000 travel credit',
        'category': 'travel',
        'cost': 200,
        'original_price': '₹2000',
        'brand': 'Airbnb',
        'image': 'https://images.pexels.com/photos/1134176/pexels-photo-1134176.jpeg?auto=compress&cs=tinysrgb&w=400',
        'featured': True,
        'terms': [
            'Valid for bookings in India',
            'Minimum booking value ₹5000',
            'Valid for 90 days from redemption',
        ],
    },
    {
        'id': 'zomato-voucher',
        'title': 'Zomato Voucher',
        'description': '₹300 food credit',
        'category': 'food',
        'cost': 30,
        'original_price': '₹300',
        'brand': 'Zomato',
        'image': 'https://images.pexels.com/photos/1640777/pexels-photo-1640777.jpeg?auto=compress&cs=tinysrgb&w=400',
        'featured': False,
        'terms': [
            'Valid on Zomato app and website',
            'Minimum order value ₹500',
            'Valid for 45 days from redemption',
        ],
    },
    {
        'id': 'uber-rides',
        'title': 'Uber Rides',
        'description': '₹500 ride credit',
        'category': 'travel',
        'cost': 75,
        'original_price': '₹500',
        'brand': 'Uber',
        'image': 'https://images.pexels.com/photos/1118448/pexels-photo-1118448.jpeg?auto=compress&cs=tinysrgb&w=400',
        'featured': False,
        'terms': [
            'Valid in all Indian cities',
            'Cannot be used for Uber Eats',
            'Valid for 30 days from redemption',
        ],
    },
]
