"""Identity keys shared across modules.

A wallet belongs to the seller's *user* id, never to the seller profile id.
Orders carry both; only `Order.artisan_user_id` is typed as WalletOwnerId so a
profile id cannot be handed to the ledger without an explicit conversion.
"""

from typing import NewType

WalletOwnerId = NewType("WalletOwnerId", str)
SellerProfileId = NewType("SellerProfileId", str)
