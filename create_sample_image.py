"""
Create the stick figure test image used by the static self test.
"""

import cv2

from livepose.data.utils import create_sample_image


if __name__ == '__main__':
    sample_image = cv2.cvtColor(create_sample_image(), cv2.COLOR_RGB2BGR)
    cv2.imwrite('sample_person.jpg', sample_image)
    print("Sample image created: sample_person.jpg")
    
    # Display the image
    cv2.imshow('Sample Person', sample_image)
    cv2.waitKey(0)
    cv2.destroyAllWindows()
