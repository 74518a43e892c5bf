# Only the successful state is modelled; a payment gateway would add
# pending / failed / refunded here.
PAID = "PAID"
